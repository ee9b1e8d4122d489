"""
初始化管理员凭据提供方

凭据来源（加密文件、密钥管理服务等）不在本服务内实现，这里从配置读取。
"""
import secrets
from typing import Tuple

from password_recovery.config import Settings
from password_recovery.errors import SetupUnavailable


class SettingsSecretProvider:
    def __init__(self, settings: Settings):
        self.settings = settings

    def get_credentials(self) -> Tuple[str, str]:
        """返回 (用户名, 密码)；未配置时抛出 SetupUnavailable"""
        user = self.settings.setup_user
        password = self.settings.setup_password
        if not user or not password:
            raise SetupUnavailable()
        return user, password

    def check(self, user: str, password: str) -> bool:
        expected_user, expected_password = self.get_credentials()
        user_ok = secrets.compare_digest(user.encode(), expected_user.encode())
        password_ok = secrets.compare_digest(password.encode(), expected_password.encode())
        return user_ok and password_ok
