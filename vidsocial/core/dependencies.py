from fastapi import Depends, Request

from .container import ApplicationContainer


def get_container(request: Request) -> ApplicationContainer:
    container = getattr(request.app.state, "container", None)
    if not container:
        raise RuntimeError("Application container not initialised.")
    return container


def get_settings(container: ApplicationContainer = Depends(get_container)):
    return container.settings


def get_user_service(container: ApplicationContainer = Depends(get_container)):
    return container.user_service


def get_admin_auth_service(container: ApplicationContainer = Depends(get_container)):
    return container.admin_auth_service


def get_admin_account_service(container: ApplicationContainer = Depends(get_container)):
    return container.admin_account_service


def get_user_moderation_service(container: ApplicationContainer = Depends(get_container)):
    return container.user_moderation_service


def get_settings_service(container: ApplicationContainer = Depends(get_container)):
    return container.settings_service


def get_activity_log(container: ApplicationContainer = Depends(get_container)):
    return container.activity_log


def get_persistence_gateway(container: ApplicationContainer = Depends(get_container)):
    return container.persistence


def get_email_service(container: ApplicationContainer = Depends(get_container)):
    return container.email_service
