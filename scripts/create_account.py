"""
创建或更新可找回密码的账号

用法:
    python scripts/create_account.py --email user@example.com --password secret
"""
import argparse
import asyncio
import getpass
import sys

from sqlalchemy import select

from password_recovery.database import AsyncSessionLocal, init_db
from password_recovery.models.user import User
from password_recovery.services.password_reset import normalize_email
from password_recovery.utils.security import hash_password


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or update a user account")
    parser.add_argument("--email", help="账号邮箱")
    parser.add_argument("--password", help="账号密码（不提供时交互输入）")
    parser.add_argument("--update", action="store_true", help="账号已存在时覆盖密码")
    return parser.parse_args(argv)


async def create_account(email: str, password: str, update: bool = False) -> bool:
    """返回是否写入了数据"""
    email = normalize_email(email)

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.email == email))
        existing = result.scalar_one_or_none()

        if existing is not None:
            if not update:
                print(f"用户 {email} 已存在，使用 --update 覆盖密码。")
                return False
            existing.password = hash_password(password)
            await session.commit()
            print(f"用户 {email} 的密码已更新。")
            return True

        session.add(User(email=email, password=hash_password(password)))
        await session.commit()
        print(f"用户 {email} 创建成功！")
        return True


async def main(argv=None) -> int:
    args = parse_args(argv)
    email = args.email or input("请输入邮箱: ").strip()
    password = args.password or getpass.getpass("请输入密码: ")
    if not email or not password:
        print("错误: 邮箱和密码不能为空")
        return 1

    await init_db()
    await create_account(email, password, update=args.update)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\n操作已取消")
        sys.exit(130)
