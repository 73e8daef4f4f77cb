ELEMENT_KINDS = ("text", "image", "shape", "logo")
IMAGE_KINDS = {"image", "logo"}
TEXT_ALIGNS = ("left", "center", "right")

OUTPUT_FORMATS = ("png", "jpeg", "webp")
LOSSY_FORMATS = {"jpeg", "webp"}
FORMAT_ALIASES = {"jpg": "jpeg"}
DEFAULT_OUTPUT_FORMAT = "png"
DEFAULT_QUALITY = 90

# 位图字号阶梯，请求字号映射到不大于它的最大档位
DEFAULT_FONT_SIZES = (16, 32, 64, 128)
DEFAULT_FONT_SIZE = 16
DEFAULT_LINE_HEIGHT_FACTOR = 1.2

TRANSPARENT_KEYWORD = "transparent"
DEFAULT_TEXT_COLOR = "#000000"
DEFAULT_LINE_COLOR = "#000000"
DEFAULT_CANVAS_BACKGROUND = "#ffffff"
PLACEHOLDER_COLOR = "#f0f0f0"
DEFAULT_Z_INDEX = 1

THUMBNAIL_SIZE = (300, 200)

DEFAULT_NAME_TEMPLATE = "generated_{job}.{ext}"
DEFAULT_STORAGE_FOLDER = "generated-images/final"
