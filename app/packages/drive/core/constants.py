"""常量定义：集中管理状态码与业务常量。"""

HTTP_STATUS_OK = 200
HTTP_STATUS_CREATED = 201

ACCESS_TOKEN_TYPE = "bearer"

# 文件夹路由中表示“根目录”的占位符，并非真实 ID
ROOT_FOLDER_SENTINEL = "root"

# 签名直链令牌的用途标识
BLOB_READ_TOKEN_PURPOSE = "blob_read"

DEFAULT_MIME_TYPE = "application/octet-stream"

# 用户列表接口单次返回的最大数量
USER_LIST_LIMIT = 10

# 不能作为文件名或文件夹名使用的保留名称
RESERVED_NAMES = frozenset({".", ".."})
