"""
密码找回服务
"""
__version__ = "1.0.0"
