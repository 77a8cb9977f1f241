"""scribeflow Gateway -- FastAPI 应用、路由与任务执行编排"""
