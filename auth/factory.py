"""Wire the auth flow components together."""

from auth.bootstrap import SessionBootstrapper
from auth.codes import CodeValidationPolicy, OneTimeCodeIssuer
from auth.config import AuthFlowConfig
from auth.controller import AuthFlowController
from auth.countdown import TickCallback
from auth.device import DeviceIdentity
from auth.interfaces import CodeDelivery, CredentialStore
from auth.security_logger import SecurityLogger
from auth.storage import KeyValueStore
from auth.trusted_devices import TrustedDeviceRegistry
from utils.timezone import Clock, now_utc


def create_auth_flow(
    config: AuthFlowConfig,
    credential_store: CredentialStore,
    code_delivery: CodeDelivery,
    store: KeyValueStore,
    platform: str = "",
    user_agent: str = "",
    security_logger: SecurityLogger | None = None,
    clock: Clock = now_utc,
    on_countdown_tick: TickCallback | None = None,
) -> AuthFlowController:
    """
    Create an AuthFlowController with all dependencies.

    Example:
        store = ValkeyClient("redis://localhost:6379/0", namespace="connecta")
        flow = create_auth_flow(
            config=load_flow_config(),
            credential_store=SupabaseCredentialStore(url, anon_key),
            code_delivery=TelegramCodeDelivery(bot_token),
            store=store,
            platform="Linux x86_64",
            user_agent=request_user_agent,
        )
        result = await flow.submit_login(email, password)
    """
    security_logger = security_logger or SecurityLogger(clock=clock)
    device = DeviceIdentity(store, config, platform=platform, user_agent=user_agent)
    trusted_devices = TrustedDeviceRegistry(
        store=store,
        device=device,
        config=config,
        security_logger=security_logger,
        clock=clock,
    )
    bootstrapper = SessionBootstrapper(
        credential_store=credential_store,
        trusted_devices=trusted_devices,
        security_logger=security_logger,
    )
    issuer = OneTimeCodeIssuer(
        config,
        policy=CodeValidationPolicy.from_config(config),
        clock=clock,
    )

    return AuthFlowController(
        config=config,
        credential_store=credential_store,
        code_delivery=code_delivery,
        code_issuer=issuer,
        trusted_devices=trusted_devices,
        bootstrapper=bootstrapper,
        store=store,
        security_logger=security_logger,
        on_countdown_tick=on_countdown_tick,
    )
