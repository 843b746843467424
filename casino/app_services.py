"""Process-wide service objects shared by the routers and the app lifespan."""

from redis.asyncio import Redis

from casino.db import Session
from casino.entity_locks import EntityLockManager
from casino.load_secrets import redis_host, redis_port
from casino.redis_publisher import RoundEventPublisher
from casino.services.crash_engine import CrashRoundEngine
from casino.services.mines import MinesService
from casino.services.qubic_transfer import QubicTransferClient
from casino.services.settlement import SettlementCoordinator
from casino.services.slide_engine import SlideRoundEngine
from casino.services.video_poker import VideoPokerService

redis = Redis(host=redis_host, port=redis_port, decode_responses=True, health_check_interval=30)
publisher = RoundEventPublisher(redis)

transfer_client = QubicTransferClient()
settlement = SettlementCoordinator(transfer_client)

session_locks = EntityLockManager()
mines_service = MinesService(Session, settlement, locks=session_locks)
video_poker_service = VideoPokerService(Session, settlement, locks=session_locks)

crash_engine = CrashRoundEngine(Session, settlement, publisher)
slide_engine = SlideRoundEngine(Session, settlement, publisher)
