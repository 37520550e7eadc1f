from app.schemas.user import (
    UserLogin, UserCreate, RegisterResponse, UserOut, SessionOut,
    LoginResponse, PermissionOut, UserActiveUpdate,
)
from app.schemas.item import (
    ItemOut, ItemQROut, ItemCreate, ItemUpdate, LocationOut, CategoryStats,
    LocationStats, InventoryStatsOut, InventorySortBy, InventoryFilter,
    StockAdjustment, TransactionOut,
)
from app.schemas.qr import InventoryQRData
from app.schemas.scan import (
    ScanRequest, ManualEntryRequest, AlertOut, ScanOutcomeOut, TorchOut,
    QuickAdjustRequest, QuickAdjustOut,
)
