"""Database seeder: roles, users, categories and tagged demo articles.

Prints an access token per user so the write endpoints can be tried with
``Authorization: Bearer <token>``.
"""
import asyncio
import argparse
import random
import time

from blog.database import Base, async_session, engine, transaction
from blog.models import Article, Category, Role, User
from blog.config import settings
from blog.security import create_access_token
from blog.services import tag_service

CATEGORIES = ["Backend", "Databases", "DevOps", "Frontend", "Security"]

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
        "react", "typescript", "aws", "devops", "testing", "performance"]


async def seed(num_users: int, num_articles: int):
    print(f"Seeding: {num_users} users (1 admin), {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with transaction(async_session) as session:
        admin_role = Role(name=settings.ADMIN_ROLE)
        session.add(admin_role)

        categories = [Category(name=name) for name in CATEGORIES]
        session.add_all(categories)

        users = []
        for i in range(num_users):
            user = User(
                username=f"user_{i:03d}",
                email=f"user_{i:03d}@example.com",
                display_name=f"User {i}",
            )
            if i == 0:
                user.roles.append(admin_role)
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users and {len(categories)} categories")

        for i in range(num_articles):
            article = Article(
                title=f"Article {i}: notes on {random.choice(TAGS)}",
                content=f"This is the full content of article {i}. " * 20,
                author_id=random.choice(users).id,
                category_id=random.choice(categories).id if random.random() > 0.2 else None,
                view_count=random.randint(0, 500),
            )
            await tag_service.reconcile_tags(
                session, article, ", ".join(random.sample(TAGS, k=random.randint(0, 4)))
            )
            session.add(article)
        await session.flush()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s\n")
    for user in users:
        role = " (admin)" if user is users[0] else ""
        print(f"  {user.username}{role}: {create_access_token(user.username)}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--users", type=int, default=5, help="Number of users (first one is admin)")
    parser.add_argument("--articles", type=int, default=50, help="Number of articles")
    args = parser.parse_args()
    asyncio.run(seed(max(args.users, 1), args.articles))


if __name__ == "__main__":
    main()
