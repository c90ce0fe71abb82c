from staff_auth.repositories.base import ResetTokenRepository, SessionRepository, UserRepository
from staff_auth.repositories.sql import SqlResetTokenRepository, SqlSessionRepository, SqlUserRepository
