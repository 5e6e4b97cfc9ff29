"""Audit service for security events logging"""

from sqlalchemy.ext.asyncio import AsyncSession

from authserver.core.config import logger
from authserver.models.audit_log import AuditLog


class AuditService:
    """Writes security events to the audit_logs table and the application log"""

    async def log_event(
        self,
        db: AsyncSession,
        event_type: str,
        success: bool,
        user_id: str | None = None,
        client_id: str | None = None,
        event_data: dict | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        error_message: str | None = None,
    ) -> AuditLog:
        """
        Log an audit event

        Args:
            db: Database session
            event_type: Type of event (login_success, login_failed, etc.)
            success: Whether the event was successful
            user_id: User ID (if applicable)
            client_id: OAuth client_id (if applicable)
            event_data: Additional event data
            ip_address: Client IP address
            user_agent: Client user agent
            error_message: Error message (if failed)

        Returns:
            Created AuditLog record
        """
        audit_log = AuditLog(
            user_id=user_id,
            client_id=client_id,
            event_type=event_type,
            event_data=event_data,
            ip_address=ip_address,
            user_agent=user_agent,
            success=success,
            error_message=error_message,
        )

        db.add(audit_log)
        await db.commit()

        log = logger.info if success else logger.warning
        log(
            f"Audit: {event_type} - {'SUCCESS' if success else 'FAILED'}",
            extra={
                "event_type": event_type,
                "success": success,
                "user_id": user_id,
                "client_id": client_id,
                "ip_address": ip_address,
            },
        )

        return audit_log

    async def log_token_issued(
        self,
        db: AsyncSession,
        grant_type: str,
        client_id: str,
        user_id: str | None = None,
        scope: list[str] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        """Log a successful token grant"""
        return await self.log_event(
            db=db,
            event_type="token_issued",
            success=True,
            user_id=user_id,
            client_id=client_id,
            event_data={"grant_type": grant_type, "scope": scope or []},
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def log_grant_denied(
        self,
        db: AsyncSession,
        grant_type: str,
        client_id: str,
        username: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        """Log a denied token grant"""
        return await self.log_event(
            db=db,
            event_type="login_failed" if username else "grant_denied",
            success=False,
            client_id=client_id,
            event_data={"grant_type": grant_type, "username": username},
            ip_address=ip_address,
            user_agent=user_agent,
            error_message="Grant denied",
        )

    async def log_login(
        self,
        db: AsyncSession,
        username: str,
        success: bool,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        """Log an interactive (session) login attempt"""
        return await self.log_event(
            db=db,
            event_type="login_success" if success else "login_failed",
            success=success,
            user_id=user_id,
            event_data={"username": username},
            ip_address=ip_address,
            user_agent=user_agent,
            error_message=None if success else "Invalid credentials",
        )

    async def log_token_revoke(
        self,
        db: AsyncSession,
        client_id: str,
        revoked: list[str],
        success: bool = True,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        """Log a token revocation request"""
        return await self.log_event(
            db=db,
            event_type="token_revoke",
            success=success,
            client_id=client_id,
            event_data={"revoked": revoked},
            ip_address=ip_address,
            user_agent=user_agent,
            error_message=None if success else "Invalid token",
        )


# Global instance
audit_service = AuditService()
