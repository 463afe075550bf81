"""
Alerts API Router
Alert history, user actions on alerts, statistics and rule reactivation
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from cryptosense.core.models.enums import AlertStatus
from cryptosense.notifications.dispatcher import NotificationDispatcher
from .dependencies import get_dispatcher

router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("/history")
async def alert_history(
    user_id: str = Query(..., description="Owning user"),
    status: Optional[AlertStatus] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Most recent alerts for a user, newest first."""
    alerts = await dispatcher.get_alert_history(user_id, status=status, limit=limit)
    return {"alerts": [alert.to_dict() for alert in alerts], "count": len(alerts)}


async def _set_status(action, history_id: str, user_id: str):
    try:
        alert = await action(history_id, user_id)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if alert is None:
        raise HTTPException(status_code=404, detail=f"Alert {history_id} not found")
    return alert.to_dict()


@router.post("/history/{history_id}/acknowledge")
async def acknowledge_alert(
    history_id: str,
    user_id: str = Query(...),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    return await _set_status(dispatcher.acknowledge, history_id, user_id)


@router.post("/history/{history_id}/dismiss")
async def dismiss_alert(
    history_id: str,
    user_id: str = Query(...),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    return await _set_status(dispatcher.dismiss, history_id, user_id)


@router.get("/stats")
async def alert_stats(
    user_id: str = Query(...),
    days: int = Query(7, ge=1, le=365),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Alert counts and delivery success rate over the last ``days``."""
    return await dispatcher.get_alert_stats(user_id, days=days)


@router.post("/rules/{rule_id}/reactivate")
async def reactivate_rule(
    rule_id: str,
    user_id: str = Query(...),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    rule = await dispatcher.reactivate_rule(rule_id, user_id)
    if rule is None:
        raise HTTPException(status_code=404, detail=f"Alert rule {rule_id} not found")
    return {
        "id": rule.id,
        "isActive": rule.is_active,
        "triggerCount": rule.trigger_count,
        "lastTriggeredAt": rule.last_triggered_at.isoformat() if rule.last_triggered_at else None,
    }
