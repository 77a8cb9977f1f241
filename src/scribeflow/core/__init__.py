"""scribeflow Core -- 领域模型、状态机、配置与 SQLite 存储"""
