from sqlalchemy import (
    Column,
    BigInteger,
    Boolean,
    Date,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

# Destination tables. Foreign keys are left out so each file can be loaded
# independently of the order the others arrive in.
MainBase = declarative_base()


class Engineer(MainBase):
    __tablename__ = "engineers"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=False)


class Team(MainBase):
    __tablename__ = "teams"

    team_id = Column(BigInteger, primary_key=True, autoincrement=False)
    team_name = Column(String(255), nullable=False)
    engineer_ids = Column(Text, nullable=False)


class Project(MainBase):
    __tablename__ = "projects"

    project_id = Column(BigInteger, primary_key=True, autoincrement=False)
    project_name = Column(String(255), nullable=False)


class Repository(MainBase):
    __tablename__ = "repositories"

    repo_id = Column(BigInteger, primary_key=True, autoincrement=False)
    project_id = Column(BigInteger, nullable=False, index=True)
    repo_name = Column(String(255), nullable=False)


class JiraIssue(MainBase):
    __tablename__ = "jira_issues"

    issue_id = Column(BigInteger, primary_key=True, autoincrement=False)
    project_id = Column(BigInteger, nullable=False, index=True)
    author_id = Column(BigInteger, nullable=False)
    creation_date = Column(Date, nullable=False)
    resolution_date = Column(Date, nullable=True)
    category = Column(String(100), nullable=False)


class Commit(MainBase):
    __tablename__ = "commits"

    commit_id = Column(String(64), primary_key=True)
    engineer_id = Column(BigInteger, nullable=False, index=True)
    jira_issue_id = Column(BigInteger, nullable=False)
    repo_id = Column(BigInteger, nullable=False, index=True)
    commit_date = Column(Date, nullable=False)
    ai_used = Column(Boolean, nullable=False, default=False)
    lines_of_code = Column(Integer, nullable=False)
