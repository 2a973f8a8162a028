"""Access to the service graph stored on the application."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import Request

    from rwa_core.container import Services


def services_of(request: Request) -> Services:
    return request.app.state.services
