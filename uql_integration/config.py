"""UQL query service configuration."""
from pydantic_settings import BaseSettings
from typing import Optional

class UqlConfig(BaseSettings):
    """UQL query service configuration."""
    url: Optional[str] = None
    token: Optional[str] = None
    tenant_id: Optional[str] = None
    execute_path: str = "/monitoring/v1/query/execute"
    verify: bool = True
    timeout: float = 60.0
    
    class Config:
        env_file = ".env"
        env_prefix = "UQL_"
    
    def is_configured(self) -> bool:
        """Check if the UQL endpoint is properly configured."""
        return all([self.url, self.token])
