"""Base services container for dependency injection."""

from config import Config
from db.manager import DatabaseManager


class Services:
    """Container for all application services.

    This class provides a centralized way to access all services and makes
    it easy to inject mock services for testing.

    Args:
        config: Application configuration object.
        db_manager: Optional database manager for testing. If provided, config is ignored.
    """

    def __init__(self, config: Config, db_manager=None):
        """Initialize services with configuration.

        Args:
            config: Config object containing application configuration.
            db_manager: Optional database manager for dependency injection (testing).
                       If None, creates DatabaseManager from config.
        """
        self.config = config
        self.db_manager = db_manager or DatabaseManager(config)

        # Lazy import to avoid circular dependencies
        from categorization import Classifier
        from rules.sqlite import SQLiteRuleStore
        from services.categories import CategoryService
        from services.funding import FundingService
        from services.merchant_groups import MerchantGroupService

        self.categories = CategoryService(self.db_manager)
        self.funding = FundingService(self.db_manager)
        self.merchant_groups = MerchantGroupService(self.db_manager, config.user_id)
        self.rules = SQLiteRuleStore(self.db_manager, config.user_id)
        self.classifier = Classifier.from_config(config, self.rules)
