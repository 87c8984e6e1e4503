"""Public site content routes: pages, sections, blog posts, writing prompts.

Reads are open to everyone and return only active or published rows to
non-admins. Writes are admin-only; the session's policy rejects anyone
else with 403.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import get_session

router = APIRouter(tags=["content"])


def _or_404(row, what: str):
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")
    return row


# Pages


@router.get("/pages", response_model=List[schemas.PageOut])
def list_pages(db: Session = Depends(get_session)):
    return crud.get_pages(db)


@router.get("/pages/{slug}", response_model=schemas.PageOut)
def get_page(slug: str, db: Session = Depends(get_session)):
    return _or_404(crud.get_page(db, slug), "Page")


@router.post("/pages", response_model=schemas.PageOut, status_code=201)
def create_page(page_in: schemas.PageCreate, db: Session = Depends(get_session)):
    """Create a page (admin only)."""
    return crud.create_page(db, page_in)


@router.patch("/pages/{slug}", response_model=schemas.PageOut)
def update_page(slug: str, page_in: schemas.PageUpdate, db: Session = Depends(get_session)):
    page = _or_404(crud.get_page(db, slug), "Page")
    return crud.update_page(db, page, page_in.model_dump(exclude_unset=True))


@router.delete("/pages/{slug}", status_code=status.HTTP_204_NO_CONTENT)
def delete_page(slug: str, db: Session = Depends(get_session)):
    crud.delete_page(db, _or_404(crud.get_page(db, slug), "Page"))
    return None


# Site sections


@router.get("/sections", response_model=List[schemas.SiteSectionOut])
def list_sections(
    page_slug: str | None = Query(None), db: Session = Depends(get_session)
):
    """
    Retrieve site sections in display order.

    Args:
        page_slug (str | None): Only sections of this page.
        db (Session): Database session bound to the caller.

    Returns:
        list[SiteSectionOut]: Sections visible to the caller.
    """
    return crud.get_sections(db, page_slug)


@router.get("/sections/{page_slug}/{section_key}", response_model=schemas.SiteSectionOut)
def get_section(page_slug: str, section_key: str, db: Session = Depends(get_session)):
    return _or_404(crud.get_section(db, page_slug, section_key), "Section")


@router.post("/sections", response_model=schemas.SiteSectionOut, status_code=201)
def create_section(
    section_in: schemas.SiteSectionCreate, db: Session = Depends(get_session)
):
    """Create a section; known section keys get their payload validated."""
    return crud.create_section(db, section_in)


@router.patch("/sections/{page_slug}/{section_key}", response_model=schemas.SiteSectionOut)
def update_section(
    page_slug: str,
    section_key: str,
    section_in: schemas.SiteSectionUpdate,
    db: Session = Depends(get_session),
):
    section = _or_404(crud.get_section(db, page_slug, section_key), "Section")
    return crud.update_section(db, section, section_in.model_dump(exclude_unset=True))


@router.delete("/sections/{page_slug}/{section_key}", status_code=status.HTTP_204_NO_CONTENT)
def delete_section(page_slug: str, section_key: str, db: Session = Depends(get_session)):
    section = _or_404(crud.get_section(db, page_slug, section_key), "Section")
    crud.delete_section(db, section)
    return None


# Blog posts


@router.get("/blog-posts", response_model=List[schemas.BlogPostOut])
def list_blog_posts(skip: int = 0, limit: int = 50, db: Session = Depends(get_session)):
    """Published posts for visitors; admins also see drafts and scheduled posts."""
    return crud.get_blog_posts(db, skip=skip, limit=limit)


@router.get("/blog-posts/{slug}", response_model=schemas.BlogPostOut)
def get_blog_post(slug: str, db: Session = Depends(get_session)):
    return _or_404(crud.get_blog_post(db, slug), "Blog post")


@router.post("/blog-posts", response_model=schemas.BlogPostOut, status_code=201)
def create_blog_post(post_in: schemas.BlogPostCreate, db: Session = Depends(get_session)):
    return crud.create_blog_post(db, post_in)


@router.patch("/blog-posts/{slug}", response_model=schemas.BlogPostOut)
def update_blog_post(
    slug: str, post_in: schemas.BlogPostUpdate, db: Session = Depends(get_session)
):
    post = _or_404(crud.get_blog_post(db, slug), "Blog post")
    return crud.update_blog_post(db, post, post_in.model_dump(exclude_unset=True))


@router.delete("/blog-posts/{slug}", status_code=status.HTTP_204_NO_CONTENT)
def delete_blog_post(slug: str, db: Session = Depends(get_session)):
    crud.delete_blog_post(db, _or_404(crud.get_blog_post(db, slug), "Blog post"))
    return None


# Writing prompts


@router.get("/writing-prompts", response_model=List[schemas.WritingPromptOut])
def list_writing_prompts(
    category: str | None = Query(None), db: Session = Depends(get_session)
):
    return crud.get_writing_prompts(db, category)


@router.post("/writing-prompts", response_model=schemas.WritingPromptOut, status_code=201)
def create_writing_prompt(
    prompt_in: schemas.WritingPromptCreate, db: Session = Depends(get_session)
):
    return crud.create_writing_prompt(db, prompt_in)


@router.patch("/writing-prompts/{prompt_id}", response_model=schemas.WritingPromptOut)
def update_writing_prompt(
    prompt_id: uuid.UUID,
    prompt_in: schemas.WritingPromptUpdate,
    db: Session = Depends(get_session),
):
    prompt = _or_404(crud.get_writing_prompt(db, prompt_id), "Writing prompt")
    return crud.update_writing_prompt(db, prompt, prompt_in.model_dump(exclude_unset=True))


@router.delete("/writing-prompts/{prompt_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_writing_prompt(prompt_id: uuid.UUID, db: Session = Depends(get_session)):
    prompt = _or_404(crud.get_writing_prompt(db, prompt_id), "Writing prompt")
    crud.delete_writing_prompt(db, prompt)
    return None
