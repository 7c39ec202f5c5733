"""
Localized response messages
"""

from typing import Dict

DEFAULT_LANGUAGE = "en"

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "invalid_path": "invalid file path, check the name for unsupported characters",
        "invalid_dir_path": "invalid directory path, check it for unsupported characters",
        "invalid_filename": "file name contains unsupported characters",
        "content_mismatch": "file content does not match its extension",
        "upload_succeeded": "upload succeeded",
        "upload_failed": "upload failed, please retry later",
        "delete_succeeded": "delete succeeded",
        "delete_failed": "delete failed, please retry later",
        "not_found": "file does not exist or has been deleted",
        "get_failed": "failed to fetch file, please retry later",
        "list_failed": "failed to list files, please retry later",
        "storage_error": "storage service error, please retry later",
        "form_failed": "failed to process upload request, check file format and size",
        "cache_dumped": "cache refreshed",
        "cache_dump_failed": "failed to refresh cache, please retry later",
        "directory_created": "Directory created",
        "unauthorized": "Unauthorized",
        "rate_limited": "Too many requests",
        "method_not_allowed": "Method not allowed",
        "internal_error": "Internal server error",
    },
    "zh": {
        "invalid_path": "文件路径无效，请检查文件名是否包含不支持的特殊字符",
        "invalid_dir_path": "目录路径无效，请检查是否包含不支持的特殊字符",
        "invalid_filename": "文件名包含不支持的特殊字符",
        "content_mismatch": "文件内容与扩展名不匹配",
        "upload_succeeded": "文件上传成功",
        "upload_failed": "文件上传失败，请稍后重试",
        "delete_succeeded": "文件删除成功",
        "delete_failed": "文件删除失败，请稍后重试",
        "not_found": "文件不存在或已被删除",
        "get_failed": "获取文件失败，请稍后重试",
        "list_failed": "获取文件列表失败，请稍后重试",
        "storage_error": "存储服务错误，请稍后重试",
        "form_failed": "处理上传请求失败，请检查文件格式和大小",
        "cache_dumped": "缓存已成功刷新",
        "cache_dump_failed": "刷新缓存失败，请稍后重试",
        "directory_created": "目录已创建",
        "unauthorized": "Unauthorized",
        "rate_limited": "Too many requests",
        "method_not_allowed": "Method not allowed",
        "internal_error": "Internal server error",
    },
}


def get_message(key: str, language: str = DEFAULT_LANGUAGE) -> str:
    """Look up a message, falling back to English"""
    catalog = MESSAGES.get(language, MESSAGES[DEFAULT_LANGUAGE])
    return catalog.get(key, MESSAGES[DEFAULT_LANGUAGE][key])
