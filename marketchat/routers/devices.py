from fastapi import APIRouter, Depends

from marketchat.database.connection import mongo_db_dependency
from marketchat.models.identity import Identity
from marketchat.repositories.device_repository import DeviceRepository
from marketchat.schemas.chat import DeviceRegisterRequest
from marketchat.utils.dependencies import get_current_identity


router = APIRouter(prefix="/devices", tags=["push"])


@router.post("/register")
async def register_device(body: DeviceRegisterRequest, identity: Identity = Depends(get_current_identity), db = Depends(mongo_db_dependency)):
    repo = DeviceRepository(db)
    doc = await repo.register(identity.user_id, body.platform, body.token)
    return {"ok": True, "device": {"platform": doc["platform"], "token": doc["token"]}}
