"""价格数据：按版本读取、缓存与校验。"""
