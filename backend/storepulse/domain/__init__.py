"""Domain models representing normalized store analytics."""

from .models import (
    ConversionRates,
    DerivedMetrics,
    ErrorInfo,
    ForecastWindow,
    HighlightMetric,
    Insight,
    InsightTone,
    InventoryAlert,
    InventorySummary,
    LowStockProduct,
    NormalizedSalesSummary,
    NormalizedTrafficSummary,
    OutcomeStatus,
    PricingStrategy,
    ProductViewCount,
    PromoSuggestion,
    SalesForecast,
    SourceDomain,
    SourceOutcome,
    TimeSeriesPoint,
)

__all__ = [
    "ConversionRates",
    "DerivedMetrics",
    "ErrorInfo",
    "ForecastWindow",
    "HighlightMetric",
    "Insight",
    "InsightTone",
    "InventoryAlert",
    "InventorySummary",
    "LowStockProduct",
    "NormalizedSalesSummary",
    "NormalizedTrafficSummary",
    "OutcomeStatus",
    "PricingStrategy",
    "ProductViewCount",
    "PromoSuggestion",
    "SalesForecast",
    "SourceDomain",
    "SourceOutcome",
    "TimeSeriesPoint",
]
