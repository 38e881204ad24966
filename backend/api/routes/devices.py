"""
Devices API Routes
監測裝置管理端點
"""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Optional
import asyncio

from services.core import CoreService
from services.device_store import DeviceNotFound

router = APIRouter(prefix="/api/devices", tags=["devices"])


class AddDeviceRequest(BaseModel):
    """新增裝置請求"""
    name: Optional[str] = None
    folder_url: Optional[str] = None
    description: Optional[str] = None
    set_as_default: bool = False


class UpdateDeviceRequest(BaseModel):
    """更新裝置請求"""
    name: Optional[str] = None
    description: Optional[str] = None
    set_as_default: bool = False


@router.get("")
async def list_devices():
    """
    列出啟用中的裝置

    Returns:
        dict: devices, default_device, stats
    """
    store = CoreService.get_instance().device_store
    return {
        "success": True,
        "devices": store.list_devices(),
        "default_device": store.get_default(),
        "stats": store.get_stats(),
    }


@router.post("")
async def add_device(req: AddDeviceRequest):
    """
    新增裝置

    Raises:
        HTTPException 400: 缺少欄位、URL 無效或資料夾已存在
    """
    if not req.name or not req.folder_url:
        raise HTTPException(
            status_code=400,
            detail={"error": "Missing required fields",
                    "message": "Device name and folder URL are required"},
        )

    store = CoreService.get_instance().device_store
    try:
        device = store.add_device(req.name, req.folder_url, req.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": "Failed to add device", "message": str(e)})

    if req.set_as_default:
        store.set_default(device.id)

    return {"success": True, "device": device, "message": "Device added successfully"}


@router.put("/{device_id}")
async def update_device(device_id: str, req: UpdateDeviceRequest):
    """
    更新裝置名稱、說明或設為預設

    Raises:
        DeviceNotFound: 由 main 轉為 404
    """
    store = CoreService.get_instance().device_store
    device = store.update_device(device_id, name=req.name, description=req.description)
    if req.set_as_default:
        store.set_default(device_id)
    return {"success": True, "device": device, "message": "Device updated successfully"}


@router.delete("/{device_id}")
async def remove_device(device_id: str):
    """
    刪除裝置（軟刪除）

    Raises:
        DeviceNotFound: 由 main 轉為 404
    """
    store = CoreService.get_instance().device_store
    if not store.remove_device(device_id):
        raise DeviceNotFound(f"Device with ID {device_id} not found")
    return {"success": True, "device_id": device_id, "message": "Device removed successfully"}


@router.get("/{device_id}/files")
async def list_device_files(device_id: str):
    """
    列出裝置資料來源中的檔案（最新在前）
    """
    core = CoreService.get_instance()
    resolver = core.resolver_for(device_id)
    files = await asyncio.to_thread(resolver.list_files)
    return {"success": True, "device_id": device_id, "files": files}
