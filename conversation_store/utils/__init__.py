from .time_utils import now_iso, parse_iso, generate_message_id
from .background import BackgroundTaskQueue
from .map_to_dict import map_message_to_public
