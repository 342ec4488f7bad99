"""
Gateway settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings so the plugin core can be configured
(``GATEWAY__*``) without touching the application-wide settings.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.transaction.properties import PROPERTY_PAYMENT_PROCESSOR_ACCOUNT_ID, find_value


class GatewaySettings(BaseSettings):
    default_provider: str = Field(default="sandbox")
    merchant_account: str = Field(default="DefaultMerchantAccount")
    # country code -> merchant account
    merchant_accounts: dict[str, str] = Field(default_factory=dict)
    hpp_target: str = Field(default="https://test.adyen.com/hpp/pay.shtml")
    # country code -> skin code
    skins: dict[str, str] = Field(default_factory=dict)
    hpp_skin: Optional[str] = None
    session_validity_minutes: int = 15

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY__",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    def get_merchant_account(
        self,
        country: Optional[str],
        properties: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Resolve the merchant account: explicit property, then per-country map, then default."""
        explicit = find_value(properties, PROPERTY_PAYMENT_PROCESSOR_ACCOUNT_ID)
        if explicit:
            return explicit
        if country:
            account = self.merchant_accounts.get(country.upper())
            if account:
                return account
        return self.merchant_account

    def get_skin(self, country: Optional[str]) -> Optional[str]:
        if country:
            skin = self.skins.get(country.upper())
            if skin:
                return skin
        return self.hpp_skin


gateway_settings = GatewaySettings()
