"""
安全相关功能
后台员工接口使用 Bearer JWT，令牌中携带员工ID和管理员标记
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .exceptions import AuthenticationError, AuthorizationError
from ..config.settings import settings


class SecurityManager:
    """安全管理器"""

    def __init__(self, secret: str = None, algorithm: str = None, expire_hours: int = None):
        self.secret = secret or settings.jwt_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.expire_hours = expire_hours or settings.jwt_expire_hours

    def create_jwt_token(self, staff_id: int, is_admin: bool = False,
                         additional_claims: Dict[str, Any] = None) -> str:
        """创建JWT token"""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(staff_id),
            "is_admin": is_admin,
            "exp": now + timedelta(hours=self.expire_hours),
            "iat": now,
        }
        if additional_claims:
            payload.update(additional_claims)
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_jwt_token(self, token: str) -> Dict[str, Any]:
        """解码JWT token"""
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {e}")


# 全局安全管理器实例
security_manager = SecurityManager()

_bearer = HTTPBearer(auto_error=False)


async def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)
) -> Dict[str, Any]:
    """从Authorization header中提取并验证令牌"""
    if credentials is None:
        raise AuthenticationError("Missing bearer token")
    return security_manager.decode_jwt_token(credentials.credentials)


async def require_admin(claims: Dict[str, Any] = Depends(get_token_claims)) -> int:
    """要求管理员权限，返回员工ID"""
    if not claims.get("is_admin"):
        raise AuthorizationError("Admin permission required")
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Token missing staff id")
