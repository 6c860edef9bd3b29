"""Populate the content store with sample data through the service layer."""
import argparse
import asyncio
import random
import time

from portfolio_cms.database import Base, engine
from portfolio_cms.logging_config import configure_logging
from portfolio_cms.models import User
from portfolio_cms.schemas import ArticleCreate, CommentCreate, ProjectCreate
from portfolio_cms.services import article_service, comment_service, project_service
from portfolio_cms.unit_of_work import UnitOfWork
from portfolio_cms.workflow import ArticleStatus

TAGS = ["Python", "FastAPI", "PostgreSQL", "Redis", "Docker", "Kubernetes",
        "React", "TypeScript", "AWS", "DevOps", "Testing", "Performance",
        "Security", "C#", ".NET", "REST API"]

TECHNOLOGIES = ["Python", "FastAPI", "React", "PostgreSQL", "Redis", "Docker", "Azure"]


async def seed(small: bool = False):
    num_users = 3 if small else 10
    num_articles = 20 if small else 500
    num_projects = 4 if small else 12

    print(f"Seeding: {num_users} users, {num_articles} articles, {num_projects} projects")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with UnitOfWork() as uow:
        users = await uow.repository(User).add_range(
            User(username=f"author_{i:02d}", email=f"author_{i:02d}@example.com",
                 display_name=f"Author {i}")
            for i in range(num_users)
        )
        await uow.save_changes()
        print(f"  Created {len(users)} users")

        comments = 0
        for i in range(num_articles):
            topic = random.choice(TAGS)
            # Roughly 80% published, the rest split between drafts and archive.
            roll = random.random()
            status = (
                ArticleStatus.PUBLISHED if roll < 0.8
                else ArticleStatus.DRAFT if roll < 0.9
                else ArticleStatus.ARCHIVED
            )
            article = await article_service.create_article(
                uow,
                ArticleCreate(
                    title=f"Article {i}: working with {topic}",
                    content=f"This is the full content of article {i}. " * 20,
                    summary=f"Notes from a production {topic} project.",
                    status=status,
                    tags=random.sample(TAGS, k=random.randint(1, 4)),
                    user_id=random.choice(users).id,
                ),
            )
            if status is not ArticleStatus.PUBLISHED:
                continue
            for n in range(random.randint(0, 3)):
                comment = await comment_service.submit_comment(
                    uow,
                    article.id,
                    CommentCreate(
                        author_name=f"Reader {n}",
                        author_email=f"reader{n}@example.com",
                        content="Great article, very helpful!",
                    ),
                    ip_address="127.0.0.1",
                    user_agent="seed-script",
                )
                if random.random() < 0.7:
                    await comment_service.approve_comment(uow, comment.id)
                comments += 1
            if (i + 1) % 100 == 0:
                print(f"  {i + 1} articles created")

        for i in range(num_projects):
            await project_service.create_project(
                uow,
                ProjectCreate(
                    title=f"Project {i}",
                    description=f"Portfolio project number {i}.",
                    technology_stack=", ".join(random.sample(TECHNOLOGIES, k=3)),
                    github_url=f"https://github.com/example/project-{i}",
                    is_active=random.random() > 0.2,
                ),
            )

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users}")
    print(f"  Articles: {num_articles}")
    print(f"  Comments: {comments}")
    print(f"  Projects: {num_projects}")


def main():
    parser = argparse.ArgumentParser(description="Seed the portfolio content store")
    parser.add_argument("--small", action="store_true", help="Use a small dataset (20 articles)")
    args = parser.parse_args()
    configure_logging("WARNING")
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
