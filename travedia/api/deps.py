from fastapi import Depends, Request

from ..config import Settings
from ..database import get_db
from ..integrations.midtrans import MidtransClient
from ..services.payments import PaymentService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(request: Request) -> MidtransClient:
    return request.app.state.gateway


def get_payment_service(
    db=Depends(get_db),
    gateway: MidtransClient = Depends(get_gateway),
    settings: Settings = Depends(get_app_settings),
) -> PaymentService:
    return PaymentService(db, gateway, settings)
