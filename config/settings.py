"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Analysis windows (days back from now)
    analysis_window_days: int = 90
    recommendation_window_days: int = 180

    # Recommendations
    personalized_recommendations: bool = True  # False = popularity ranking only
    recommendation_limit: int = 5

    # Product trends
    min_product_records: int = 5
    min_trend_months: int = 3
    trend_threshold_pct: float = 10.0
    price_change_threshold_pct: float = 5.0
    trend_list_limit: int = 5
    top_products_limit: int = 10

    # Customers
    top_customers_limit: int = 10

    # CSV exports of the record store
    data_directory: str = "data/exports"


settings = Settings()
