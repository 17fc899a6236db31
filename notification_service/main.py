import os
import logging

from fastapi import Depends, FastAPI, HTTPException, Request

from .broker import RabbitBroker
from .config import Settings, setup_logging
from .consumer import start_consumers
from .dispatch import DispatchService
from .errors import PublishError, StorageError, ValidationError
from .models import NotificationRequest
from .providers import build_providers
from .store import SqlNotificationStore

settings = Settings.from_env()
setup_logging(settings)

logger = logging.getLogger(__name__)

app = FastAPI(title="Notification Service")


@app.on_event("startup")
async def on_startup():
    store = SqlNotificationStore.from_url(settings.database_url)
    broker = RabbitBroker.from_settings(settings)
    providers = {}
    try:
        await store.create_schema()
        # A broker we cannot reach aborts startup before any consumer binds
        await broker.connect()
        providers = build_providers(settings)
        consumers = await start_consumers(broker, providers, settings)
    except Exception as e:
        logger.error(f"❌ Startup failed, releasing opened resources: {e}")
        await _release(broker, providers, store)
        raise

    app.state.store = store
    app.state.broker = broker
    app.state.providers = providers
    app.state.consumers = consumers
    app.state.dispatch_service = DispatchService(store, broker)
    logger.info(f"✅ {len(consumers)} consumers started")


@app.on_event("shutdown")
async def on_shutdown():
    await _release(
        getattr(app.state, "broker", None),
        getattr(app.state, "providers", {}),
        getattr(app.state, "store", None),
    )


async def _release(broker, providers, store):
    if broker is not None:
        await broker.close()
    for provider in providers.values():
        await provider.close()
    if store is not None:
        await store.close()


def get_dispatch_service(request: Request) -> DispatchService:
    service = getattr(request.app.state, "dispatch_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Dispatch service is not ready")
    return service


@app.post("/api/v1/notifications", status_code=201)
async def create_notification(
    payload: NotificationRequest,
    service: DispatchService = Depends(get_dispatch_service),
):
    try:
        notification_id = await service.dispatch(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Failed to store notification: {e}")
    except PublishError as e:
        raise HTTPException(
            status_code=502,
            detail={
                "message": f"Notification stored but not enqueued: {e}",
                "notificationId": e.notification_id,
            },
        )

    return {
        "success": True,
        "message": "Notification enqueued successfully",
        "notificationId": notification_id,
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8001))
    uvicorn.run("notification_service.main:app", host="0.0.0.0", port=port)
