"""
Application service for managing application lifecycle.
"""

from dependency_injector import providers

from portfolio_monitor.config import AppConfig, Credentials
from portfolio_monitor.core.service_container import ServiceContainer
from portfolio_monitor.logger import AppLogger

app_logger = AppLogger(__name__)


class ApplicationService:
    """Service for managing application lifecycle and orchestration"""

    def __init__(self, config: AppConfig, credentials: Credentials, service_container: ServiceContainer = None):
        self.service_container = service_container or ServiceContainer(
            config=providers.Object(config),
            credentials=providers.Object(credentials)
        )
        self.scheduler = None
        self.running = False

    async def start(self):
        """Start the monitoring scheduler"""
        app_logger.log_info("Starting application services...")

        try:
            self.scheduler = self.service_container.scheduler()
            await self.scheduler.start()

            self.running = True
            app_logger.log_info("Application services started successfully")

        except Exception as e:
            app_logger.log_error(f"Failed to start application services: {e}")
            raise

    async def stop(self):
        """Stop the scheduler and release the state store"""
        if not self.running:
            return

        self.running = False

        if self.scheduler:
            await self.scheduler.stop()

        await self.service_container.state_store().close()

        app_logger.log_info("Application services stopped successfully")

    def get_service_container(self) -> ServiceContainer:
        """Get the service container"""
        return self.service_container

    def is_running(self) -> bool:
        """Check if application is running"""
        return self.running
