"""项目内使用的自定义异常定义。"""


class ImageCompressorError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(ImageCompressorError):
    """配置不合法时抛出。"""


class CompressionError(ImageCompressorError):
    """压缩引擎单次调用失败的基类。"""


class DecodeError(CompressionError):
    """输入字节无法解码为图像。"""


class EncodeError(CompressionError):
    """编码器无法为目标格式产出数据。"""


class ContextError(CompressionError):
    """绘制画布不可用（环境级失败）。"""


class UnsupportedTypeError(ImageCompressorError):
    """上传文件的媒体类型不是图片。"""


class ResourceReleaseError(ImageCompressorError):
    """释放未登记或已释放的资源句柄。"""


class ImageWriteError(ImageCompressorError):
    """输出写入失败。"""
