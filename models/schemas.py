from pydantic import BaseModel


class CrawlerConfig(BaseModel):
    """Configuration envoyée à POST /crawler/start (miroir du formulaire)."""
    platform: str
    login_type: str = "qrcode"
    crawler_type: str = "search"
    keywords: str = ""
    specified_ids: str = ""
    creator_ids: str = ""
    start_page: int = 1
    enable_comments: bool = True
    enable_sub_comments: bool = False
    save_option: str = "json"
    cookies: str = ""
    headless: bool = False
    min_time: str = ""
    ip_location: str = ""
