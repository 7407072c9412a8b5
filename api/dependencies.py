"""
API依赖项 - 管道容器与回调来源校验
"""
import ipaddress

from fastapi import Depends, HTTPException, Request, status

from application.services.inventory_ledger import InventoryLedger
from core.logging_config import get_logger
from infrastructure.container import PipelineContainer


logger = get_logger(__name__)


def get_container(request: Request) -> PipelineContainer:
    """获取应用生命周期内构建的管道容器"""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment pipeline not initialised",
        )
    return container


def get_inventory_ledger(container: PipelineContainer = Depends(get_container)) -> InventoryLedger:
    return container.inventory


def ip_permitted(remote_ip: str, allowlist: list[str]) -> bool:
    """单个IP或CIDR网段匹配"""
    try:
        rip = ipaddress.ip_address(remote_ip)
    except ValueError:
        return False
    for entry in allowlist:
        try:
            if "/" in entry:
                if rip in ipaddress.ip_network(entry, strict=False):
                    return True
            elif rip == ipaddress.ip_address(entry):
                return True
        except ValueError:
            logger.warning("webhook_allowlist_entry_invalid", entry=entry)
            continue
    return False


async def verify_webhook_source(
    request: Request,
    container: PipelineContainer = Depends(get_container),
) -> None:
    """可选的回调来源IP白名单；未配置时放行"""
    allowlist = container.settings.webhook.ip_allowlist or []
    if not allowlist:
        return
    remote_ip = request.client.host if request.client else ""
    if not ip_permitted(remote_ip, allowlist):
        logger.warning("webhook_ip_rejected", remote_ip=remote_ip, path=request.url.path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Source IP not allowed")
