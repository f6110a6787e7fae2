DEFAULT_CATEGORIES = [
    "Laptops", "Mobile Phones", "Headphones", "GPU",
]

# 默认类别的属性配置（首次初始化数据库时写入 category 表）
# 说明:
# - key: 类别名（需与 DEFAULT_CATEGORIES 一致）
# - value: 属性名列表，顺序即表单展示顺序
CATEGORY_ATTRIBUTES = {
    "Laptops": ["Processor", "RAM", "Storage", "Display Size", "Graphics Card"],
    "Mobile Phones": ["Screen Size", "Camera", "Battery", "Storage", "RAM"],
    "Headphones": ["Driver Size", "Frequency Response", "Impedance", "Connection Type"],
    "GPU": ["Memory", "Core Clock", "Memory Clock", "Power Consumption", "Interface"],
}

# 每个类别都必须带的属性：管理员不能删除，永远排在最前面
DEFAULT_ATTRIBUTES = ["Brand", "Model"]

# 描述字段是自由文本，不参与类别属性/自定义字段之间的搬移
DESCRIPTION_KEY = "description"

# 单个类别最多允许多少个属性（含默认属性）
MAX_CATEGORY_ATTRIBUTES = 20
MAX_CATEGORY_NAME_LENGTH = 255

UNIT_OF_MEASURE_OPTIONS = ["pieces", "kg", "liters", "meters", "units"]

ADJUSTMENT_REASONS = ["purchase", "sale", "damage", "return", "correction", "other"]

DB_FILE = "erp_inventory.db"
ENV_FILE = ".env"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 7861
