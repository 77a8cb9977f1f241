"""CLI 入口模块 -- python -m scribeflow.core <command>

支持的命令：
  init-db           初始化数据库表结构
  fail-stuck-tasks  将卡在 generating 的任务标记为 failed（保留已生成内容）
"""

import asyncio
import sys

from .config import get_db_path

STUCK_TASK_MESSAGE = "execution interrupted before completion"


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m scribeflow.core <command>")
        print("命令:")
        print("  init-db           初始化数据库表结构")
        print("  fail-stuck-tasks  将卡在 generating 的任务标记为 failed")
        sys.exit(1)

    command = sys.argv[1]

    if command == "init-db":
        asyncio.run(init_database())
    elif command == "fail-stuck-tasks":
        asyncio.run(fail_stuck_tasks())
    else:
        print(f"未知命令: {command}")
        print("可用命令: init-db, fail-stuck-tasks")
        sys.exit(1)


async def init_database() -> None:
    """创建数据库及表结构"""
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    store_group = await create_store_group(db_path)
    await store_group.conn.close()
    print("初始化完成")


async def fail_stuck_tasks() -> int:
    """将所有 generating 任务推进到 failed

    进程在生成过程中崩溃会留下 generating 状态的任务，
    此命令在服务重启前执行，使其进入真实的终态。

    Returns:
        处理的任务数
    """
    from .models import TaskStatus, build_failure_result
    from .store import TaskStatusConflictError, create_store_group, transition_task_status

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    count = 0
    try:
        tasks = await store_group.task_store.list_tasks(status=TaskStatus.GENERATING.value)
        for task in tasks:
            try:
                await transition_task_status(
                    store_group.conn,
                    store_group.task_store,
                    task.task_id,
                    TaskStatus.GENERATING,
                    TaskStatus.FAILED,
                    result=build_failure_result(task.result, STUCK_TASK_MESSAGE),
                )
            except TaskStatusConflictError:
                # 期间已被正常执行流程推进到终态
                continue
            count += 1
        print(f"处理完成，共标记 {count} 个任务为 failed")
    finally:
        await store_group.conn.close()
    return count


if __name__ == "__main__":
    main()
