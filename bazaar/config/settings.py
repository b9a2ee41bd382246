from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings

class Settings(BaseSettings):

    DATABASE_URL : str
    JWT_SECRET : str
    JWT_ALGO : str = "HS256"
    CURRENCY : str = "INR"

    # revenue split of the merchandise base (order total minus delivery charge)
    SELLER_SHARE_PERCENT : int = 80
    COURIER_SHARE_PERCENT : int = 10
    PLATFORM_SHARE_PERCENT : int = 10

    # public id of the user whose wallet receives the platform share
    PLATFORM_ACCOUNT_ID : Optional[str] = None

    MIN_PAYOUT_AMOUNT : int = 100
    DELIVERY_CHARGE : int = 30
    FREE_DELIVERY_THRESHOLD : int = 100
    TAX_PERCENT : int = 0

    @model_validator(mode="after")
    def check_split(self):
        shares = (self.SELLER_SHARE_PERCENT, self.COURIER_SHARE_PERCENT, self.PLATFORM_SHARE_PERCENT)
        if any(s < 0 for s in shares) or sum(shares) != 100:
            raise ValueError("revenue share percentages must be non negative and add up to 100")
        return self

    class Config:
        env_file = ".env"
        extra="ignore"

config_settings = Settings()
