from seqre.utils.config import app_env, app_name, app_prefix, load_config, Settings
from seqre.utils.crypto import generate_key, seal, open_envelope, encode_key, decode_key, share_url, split_share_url
from seqre.utils.shortener import generate_shortcode, is_valid_shortcode, validate_shortcode
from seqre.utils.ratelimit import RateLimiter, client_ip
from seqre.utils.validators import validate_target_url
from seqre.utils.logging import initialize_logging


__all__ = [
    'app_env',
    'app_name',
    'app_prefix',
    'load_config',
    'Settings',
    'generate_key',
    'seal',
    'open_envelope',
    'encode_key',
    'decode_key',
    'share_url',
    'split_share_url',
    'generate_shortcode',
    'is_valid_shortcode',
    'validate_shortcode',
    'RateLimiter',
    'client_ip',
    'validate_target_url',
    'initialize_logging',
]
