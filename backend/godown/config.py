from decimal import Decimal

from pydantic_settings import BaseSettings

from godown.schemas.billing import RateTable


class Settings(BaseSettings):
    # App
    environment: str = "development"
    debug: bool = True
    allowed_origins: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Billing defaults (per bag), used when the caller has no crop rate table
    default_rent_price_6m: Decimal = Decimal("36")
    default_rent_price_1y: Decimal = Decimal("55")

    # Payments
    payment_tolerance: Decimal = Decimal("0.01")
    currency_symbol: str = "₹"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def default_rate_table(self) -> RateTable:
        return RateTable(
            price_6m=self.default_rent_price_6m,
            price_1y=self.default_rent_price_1y,
        )


settings = Settings()
