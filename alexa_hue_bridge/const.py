"""Constants for the Alexa Hue bridge emulator."""

# Bridge identity
BRIDGE_UUID_PREFIX = "f6543a06-da50-11ba-8d8f-"
MAC_TEMPLATE = "00:11:22:33:44:55"
UNIQUE_ID_TEMPLATE = "00:11:22:33:44:55:66:77-88"
BRIDGE_ID_TOKEN = "FFFE"
BRIDGE_MODEL_ID = "BSB002"
DEFAULT_BRIDGE_NAME = "Philips hue"

# Hue API
HUE_API_USERNAME = "c6260f982b43a226b5542b967f612ce"
HUE_API_VERSION = "1.56.0"
HUE_SW_VERSION = "1950074020"
HUE_DATASTORE_VERSION = "126"

# Paths
DESCRIPTION_PATH = "/alexa-home/setup.xml"
V2_RESOURCE_PATH = "/clip/v2/resource"
V2_EVENTSTREAM_PATH = "/eventstream/clip/v2"

# Configuration keys read from the environment
CONF_LISTEN_PORT = "listen_port"
CONF_BIND_ADDRESS = "bind_address"
CONF_ADVERTISE_URI = "advertise_uri"
CONF_MAX_ITEMS_PER_HUB = "max_items_per_hub"
CONF_BRI_DEFAULT = "bri_default"
CONF_CONTROLLER_ID = "controller_id"
CONF_USE_HTTPS = "use_https"
CONF_DEBUG = "debug"

# Default values
DEFAULT_LISTEN_PORT = 80
DEFAULT_BIND_ADDRESS = "0.0.0.0"
DEFAULT_MAX_ITEMS_PER_HUB = 30
DEFAULT_BRI = 254

# Seconds a draining hub waits for in-flight responses before closing
HUB_SHUTDOWN_TIMEOUT = 2.0

# Seconds an event stream write may block before the client is dropped
EVENT_STREAM_WRITE_TIMEOUT = 5.0

# SSDP
SSDP_BROADCAST_ADDR = "239.255.255.250"
SSDP_BROADCAST_PORT = 1900
SSDP_MAX_AGE = 100
SSDP_NOTIFY_INTERVAL = 60.0
SSDP_SERVER = "Linux/3.14.0 UPnP/1.0 IpBridge/1.56.0"
USN_ROOT_DEVICE = "upnp:rootdevice"
USN_BASIC_DEVICE = "urn:schemas-upnp-org:device:basic:1"

# Hue API min/max values, see https://developers.meethue.com/develop/hue-api/lights-api/
HUE_API_STATE_BRI_MIN = 0
HUE_API_STATE_BRI_MAX = 254
HUE_API_STATE_HUE_MIN = 0
HUE_API_STATE_HUE_MAX = 65535
HUE_API_STATE_SAT_MIN = 0
HUE_API_STATE_SAT_MAX = 254
HUE_API_STATE_CT_MIN = 153
HUE_API_STATE_CT_MAX = 500
POSITION_MIN = 0
POSITION_MAX = 100

# Default color coordinates (warm white)
DEFAULT_XY = (0.3127, 0.329)
DEFAULT_CT = 366

# Temperature scales
SCALE_CELSIUS = "CELSIUS"
SCALE_FAHRENHEIT = "FAHRENHEIT"
DEFAULT_TEMPERATURE = 20.0
