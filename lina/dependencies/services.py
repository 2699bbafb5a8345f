"""
FastAPI dependencies resolving the components wired onto app.state by
lina.main.create_app(). Tests swap components by assigning app.state.
"""
from fastapi import Request

from lina.core.config import Settings
from lina.services.bold_client import BoldClient
from lina.services.chat import ChatService
from lina.services.completion import CompletionRelay
from lina.services.gate import Gate
from lina.services.identity import IdentityIssuer
from lina.services.ledger import AccessLedger


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_ledger(request: Request) -> AccessLedger:
    return request.app.state.ledger


def get_issuer(request: Request) -> IdentityIssuer:
    return request.app.state.issuer


def get_gate(request: Request) -> Gate:
    return request.app.state.gate


def get_relay(request: Request) -> CompletionRelay:
    return request.app.state.relay


def get_bold_client(request: Request) -> BoldClient:
    return request.app.state.bold_client


def get_chat_service(request: Request) -> ChatService:
    state = request.app.state
    return ChatService(state.gate, state.ledger, state.issuer, state.relay, state.settings)
