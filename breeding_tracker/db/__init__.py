from .repositories import DBRecordGateway
from .session import create_session, database_url, get_engine
