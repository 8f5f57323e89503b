"""
Common fixtures and setup for data context tests.
Provides the test entity classes shared by the test modules.
"""
import pytest
from typing import List, Optional, Set

from pydantic import Field

from graphstage.config import ContextSettings
from graphstage.context.entity import Entity
from graphstage.context.storage import InMemoryDataContext

# ========================================================================
# Test entity classes
# ========================================================================

class Author(Entity):
    """Leaf entity with scalar fields only."""
    name: str = ""


class Post(Entity):
    """Leaf entity held in a blog's collection."""
    title: str = ""
    likes: int = 0


class Blog(Entity):
    """Entity with one singular and one plural relationship."""
    name: str = ""
    author: Optional[Author] = None
    posts: Optional[List[Post]] = Field(default_factory=list)


class Site(Entity):
    """Top of the three-level Site -> Blog -> Author/Post graph."""
    id: int = 0
    blog: Optional[Blog] = None


class BlogList(Entity):
    """Separate root that can share blogs with a site."""
    blogs: List[Blog] = Field(default_factory=list)


class TreeNode(Entity):
    """Self-referential entity with a back-reference to its parent."""
    name: str
    parent: Optional["TreeNode"] = None
    children: List["TreeNode"] = Field(default_factory=list)

    def add_child(self, child: "TreeNode") -> "TreeNode":
        self.children.append(child)
        child.parent = self
        return child


class Catalog(Entity):
    """Entity whose keyed mapping is not a relationship."""
    name: str = ""
    posts_by_slug: dict[str, Post] = Field(default_factory=dict)
    featured: Optional[Post] = None


class AuditedBlog(Entity):
    """Entity hiding one of its slots from discovery."""
    posts: List[Post] = Field(default_factory=list)
    last_viewed: Optional[Post] = None

    def get_untracked_fields(self) -> Set[str]:
        return {"last_viewed"}

# ========================================================================
# Fixtures
# ========================================================================

@pytest.fixture
def context() -> InMemoryDataContext:
    """Provide a fresh data context."""
    return InMemoryDataContext(settings=ContextSettings())


@pytest.fixture
def blog_with_posts() -> Blog:
    """Create a blog with an author and two posts."""
    return Blog(
        name="Blog",
        author=Author(name="Ada"),
        posts=[Post(title="First"), Post(title="Second")],
    )


@pytest.fixture
def tree() -> TreeNode:
    """Create a three-level tree with parent back-references."""
    root = TreeNode(name="Root")
    mid1 = root.add_child(TreeNode(name="Mid1"))
    mid2 = root.add_child(TreeNode(name="Mid2"))
    mid1.add_child(TreeNode(name="Leaf1"))
    mid2.add_child(TreeNode(name="Leaf2"))
    return root
