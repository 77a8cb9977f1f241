"""ProjectStore SQLite 实现"""

import json
from datetime import datetime

import aiosqlite

from ..models.project import AIApiSettings, Project


class SqliteProjectStore:
    """ProjectStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_project(self, project: Project) -> None:
        """创建项目记录"""
        await self._conn.execute(
            """
            INSERT INTO projects (project_id, name, ai_api, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                project.project_id,
                project.name,
                project.ai_api.model_dump_json() if project.ai_api else None,
                project.created_at.isoformat(),
                project.updated_at.isoformat(),
            ),
        )

    async def get_project(self, project_id: str) -> Project | None:
        """根据 project_id 查询项目"""
        cursor = await self._conn.execute(
            "SELECT * FROM projects WHERE project_id = ?",
            (project_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_project(row)

    async def find_project_provider_config(self, project_id: str) -> AIApiSettings | None:
        """读取项目选中的 AI API 配置（原始值，未校验）"""
        project = await self.get_project(project_id)
        if project is None:
            return None
        return project.ai_api

    @staticmethod
    def _row_to_project(row: aiosqlite.Row) -> Project:
        """将数据库行转换为 Project 模型"""
        ai_api = AIApiSettings(**json.loads(row["ai_api"])) if row["ai_api"] else None
        return Project(
            project_id=row["project_id"],
            name=row["name"],
            ai_api=ai_api,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
