"""
Dependency injection for API endpoints.
Shared instances are set by main.py on startup.
"""

from typing import Optional

from visionscan.core.exceptions import NotConfiguredError
from visionscan.services.history_service import HistoryService
from visionscan.services.model_controller import ModelController
from visionscan.services.perception import PerceptionService
from visionscan.services.subscription_service import SubscriptionService

# Global instances (set by main.py on startup)
controller_instance: Optional[ModelController] = None
perception_instance: Optional[PerceptionService] = None
history_instance: Optional[HistoryService] = None
subscription_instance: Optional[SubscriptionService] = None


def set_services(
    controller: ModelController,
    perception: PerceptionService,
    history: Optional[HistoryService] = None,
    subscriptions: Optional[SubscriptionService] = None,
):
    """
    Set the service instances. Called from main.py during startup.
    History and subscriptions stay None when Supabase is not configured.
    """
    global controller_instance, perception_instance, history_instance, subscription_instance
    controller_instance = controller
    perception_instance = perception
    history_instance = history
    subscription_instance = subscriptions


def get_controller() -> ModelController:
    """Dependency for FastAPI endpoints"""
    if controller_instance is None:
        raise RuntimeError("ModelController not initialized. Check server startup logs.")
    return controller_instance


def get_perception() -> PerceptionService:
    if perception_instance is None:
        raise RuntimeError("PerceptionService not initialized. Check server startup logs.")
    return perception_instance


def get_history_optional() -> Optional[HistoryService]:
    return history_instance


def get_subscriptions_optional() -> Optional[SubscriptionService]:
    return subscription_instance


def get_history() -> HistoryService:
    if history_instance is None:
        raise NotConfiguredError("Scan history")
    return history_instance


def get_subscriptions() -> SubscriptionService:
    if subscription_instance is None:
        raise NotConfiguredError("Subscriptions")
    return subscription_instance
