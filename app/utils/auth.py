from passlib.context import CryptContext

# Password hashing context for locally managed student accounts
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
