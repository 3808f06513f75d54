"""
Static niche taxonomy — business path → category → micro-niche.

Depth 0 nodes are roots (one per business path), depth 1 categories,
depth 2 micro-niches. Aliases are the terms users type; track keywords are
what the fetcher asks the data sources about. The tree is seeded into the
store once and treated as read-only at runtime.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from trend_intel.errors import TaxonomyError
from trend_intel.schemas import NicheTaxonomyNode

# (id, parent_id, label, aliases, track_keywords); path_id is inherited from the root
_TREE: List[Tuple[str, Optional[str], str, List[str], List[str]]] = [
    # ── Skill & Service → micro_service ──
    ("skill_service", None, "Skill & Service",
     ["jasa", "service", "freelance"],
     ["freelance Indonesia", "jasa digital", "remote work"]),
    ("skill.copywriting", "skill_service", "AI Copywriting",
     ["copywriter", "penulisan", "caption"],
     ["AI copywriting", "jasa copywriting", "copywriter freelance"]),
    ("skill.copywriting.email", "skill.copywriting", "Email Copywriting",
     ["email marketing", "newsletter"],
     ["AI email marketing", "cold email AI", "email copywriter"]),
    ("skill.copywriting.ads", "skill.copywriting", "Ads Copywriting",
     ["iklan", "Facebook ads", "Google ads"],
     ["jasa iklan Facebook", "Google ads copywriter", "AI ads copy"]),
    ("skill.copywriting.social", "skill.copywriting", "Social Media Copy",
     ["caption", "hook", "social copy"],
     ["jasa caption Instagram", "social media copywriter"]),
    ("skill.design", "skill_service", "AI Design",
     ["desain", "thumbnail", "visual"],
     ["AI design tool", "jasa desain", "thumbnail designer"]),
    ("skill.video", "skill_service", "Video Production",
     ["video", "editing", "motion"],
     ["jasa edit video", "video editor freelance", "AI video editing"]),
    ("skill.data_analysis", "skill_service", "Data Analysis",
     ["data analyst", "spreadsheet", "dashboard"],
     ["freelance data analyst", "jasa analisis data", "Google Sheets automation"]),
    ("skill.translation", "skill_service", "AI Translation",
     ["terjemahan", "localization"],
     ["jasa terjemahan", "AI translation", "localization service"]),

    # ── Audience-Based → content_monetization ──
    ("audience_based", None, "Audience-Based",
     ["content creator", "audience", "monetisasi konten"],
     ["content creator Indonesia", "monetisasi konten", "cara dapat uang dari konten"]),
    ("audience.finance", "audience_based", "Personal Finance",
     ["keuangan", "investasi", "uang"],
     ["keuangan pribadi", "tips investasi", "financial literacy"]),
    ("audience.finance.milenial", "audience.finance", "Finance Milenial",
     ["milenial finance", "investasi muda"],
     ["investasi untuk pemula", "reksadana milenial", "cara mengatur keuangan",
      "financial freedom milenial", "side hustle 2026"]),
    ("audience.finance.umkm", "audience.finance", "Finance UMKM",
     ["keuangan UMKM", "akuntansi usaha"],
     ["akuntansi UMKM", "keuangan usaha kecil"]),
    ("audience.finance.crypto", "audience.finance", "Crypto & DeFi",
     ["cryptocurrency", "bitcoin", "defi"],
     ["crypto Indonesia 2026", "bitcoin halving", "DeFi yield farming"]),
    ("audience.health", "audience_based", "Health & Fitness",
     ["kesehatan", "fitness", "diet"],
     ["tips kesehatan", "fitness Indonesia", "diet sehat"]),
    ("audience.health.workout", "audience.health", "Workout & Gym",
     ["gym", "workout", "bodybuilding"],
     ["workout di rumah", "gym pemula", "bodybuilding tips"]),
    ("audience.health.nutrition", "audience.health", "Nutrition & Diet",
     ["diet", "nutrisi", "meal prep"],
     ["meal prep Indonesia", "diet sehat", "nutrisi makanan"]),
    ("audience.tech", "audience_based", "Tech & AI",
     ["teknologi", "AI", "software"],
     ["teknologi terbaru", "AI news", "software review"]),
    ("audience.tech.ai_tools", "audience.tech", "AI Tools Review",
     ["AI tools", "ChatGPT", "review AI"],
     ["ChatGPT tips", "AI automation tools", "Claude AI vs ChatGPT", "AI tools terbaik"]),
    ("audience.tech.programming", "audience.tech", "Programming Tutorial",
     ["coding", "programming", "web dev"],
     ["belajar coding", "tutorial JavaScript", "web development"]),
    ("audience.gaming", "audience_based", "Gaming",
     ["game", "esports", "mobile game"],
     ["gaming Indonesia", "esports", "mobile game terbaru"]),
    ("audience.gaming.mobile", "audience.gaming", "Mobile Gaming",
     ["game HP", "mobile legends", "PUBG"],
     ["Mobile Legends tips", "PUBG Mobile", "game mobile terbaru"]),
    ("audience.education", "audience_based", "Education",
     ["pendidikan", "belajar", "tutorial"],
     ["tips belajar", "edukasi online", "tutorial"]),
    ("audience.parenting", "audience_based", "Parenting",
     ["parenting", "anak", "keluarga"],
     ["parenting tips", "tumbuh kembang anak", "parenting milenial"]),
    ("audience.business", "audience_based", "Business & Startup",
     ["bisnis", "startup", "entrepreneurship"],
     ["bisnis online", "startup Indonesia", "entrepreneurship tips"]),

    # ── Digital Product → digital_product ──
    ("digital_product", None, "Digital Product",
     ["produk digital", "info product", "kursus"],
     ["produk digital", "jualan digital", "passive income digital"]),
    ("product.course", "digital_product", "Online Course",
     ["kursus online", "e-learning", "udemy"],
     ["kursus online Indonesia", "cara buat kursus", "platform e-learning"]),
    ("product.template", "digital_product", "Templates & Tools",
     ["template", "notion", "figma"],
     ["template bisnis", "Notion template", "Figma template"]),
    ("product.template.notion", "product.template", "Notion Templates",
     ["notion template", "productivity"],
     ["notion template gratis", "notion AI workspace", "notion productivity"]),
    ("product.template.canva", "product.template", "Canva Templates",
     ["canva", "design template"],
     ["canva template premium", "jual template canva"]),
    ("product.ebook", "digital_product", "E-book & Guide",
     ["ebook", "panduan", "whitepaper"],
     ["cara buat ebook", "jual ebook online", "ebook Indonesia"]),
    ("product.prompt_pack", "digital_product", "AI Prompt Packs",
     ["prompt", "ChatGPT", "Midjourney"],
     ["jual prompt ChatGPT", "Midjourney prompts", "AI prompt marketplace"]),

    # ── Commerce & Arbitrage → arbitrage_skill ──
    ("commerce_arbitrage", None, "Commerce & Arbitrage",
     ["jualan", "dropship", "arbitrase"],
     ["bisnis online", "dropshipping Indonesia", "arbitrase digital"]),
    ("commerce.dropship", "commerce_arbitrage", "Dropshipping",
     ["dropship", "supplier", "reseller"],
     ["dropship murah", "supplier dropship", "cara dropshipping"]),
    ("commerce.print_on_demand", "commerce_arbitrage", "Print on Demand",
     ["POD", "kaos", "merchandise"],
     ["print on demand Indonesia", "jual kaos custom", "POD platform"]),
    ("commerce.digital_resell", "commerce_arbitrage", "Digital Reselling",
     ["resell", "lifetime deal", "license"],
     ["resell software", "lifetime deal", "jual lisensi digital"]),

    # ── Data & Research → speculative ──
    ("data_research", None, "Data & Research",
     ["riset", "data", "analisis"],
     ["riset pasar", "data analysis", "market research"]),

    # ── Automation Builder → freelance_upgrade ──
    ("automation_builder", None, "Automation Builder",
     ["automasi", "bot", "nocode"],
     ["no-code automation", "Zapier", "Make.com", "bot Telegram"]),
]

ROOT_PATHS: Dict[str, str] = {
    "skill_service": "micro_service",
    "audience_based": "content_monetization",
    "digital_product": "digital_product",
    "commerce_arbitrage": "arbitrage_skill",
    "data_research": "speculative",
    "automation_builder": "freelance_upgrade",
}

# Economic model ids (onboarding) → taxonomy path ids
ECONOMIC_TO_PATH: Dict[str, str] = dict(ROOT_PATHS)

# Branching sub-sector ids → taxonomy node
SUB_SECTOR_TO_NICHE: Dict[str, str] = {
    "writing": "skill.copywriting",
    "design": "skill.design",
    "video": "skill.video",
    "development": "skill.data_analysis",
    "marketing": "skill.copywriting",
    "ai_operator": "skill.data_analysis",
    "content_creator": "audience.education",
    "micro_influencer": "audience.business",
    "niche_page": "audience.tech",
    "community_builder": "audience.business",
    "ebook": "product.ebook",
    "template": "product.template",
    "prompt_pack": "product.prompt_pack",
    "course_mini": "product.course",
    "membership": "product.course",
    "saas_micro": "product.template",
    "dropship": "commerce.dropship",
    "print_on_demand": "commerce.print_on_demand",
    "affiliate": "commerce.digital_resell",
    "amazon_kdp": "product.ebook",
    "tiktok_shop": "commerce.dropship",
    "digital_resell": "commerce.digital_resell",
    "trend_researcher": "data_research",
    "market_analyst": "data_research",
    "crypto_analyst": "audience.finance.crypto",
    "newsletter_writer": "audience.business",
    "ai_curator": "audience.tech.ai_tools",
    "nocode_builder": "automation_builder",
    "zapier_automation": "automation_builder",
    "crm_setup": "automation_builder",
    "ai_workflow": "automation_builder",
    "funnel_builder": "automation_builder",
}

# Branching niche ids → taxonomy node
NICHE_TO_TAXONOMY: Dict[str, str] = {
    "copywriting": "skill.copywriting.ads",
    "seo_content": "skill.copywriting",
    "script_writing": "skill.copywriting.social",
    "ghostwriting": "skill.copywriting",
    "ui_ux": "skill.design",
    "branding": "skill.design",
    "social_media_design": "skill.design",
    "thumbnail_design": "skill.design",
    "education": "audience.education",
    "gaming_content": "audience.gaming.mobile",
    "finance_content": "audience.finance.milenial",
    "health_content": "audience.health.workout",
    "tech_content": "audience.tech.ai_tools",
    "lifestyle": "audience.parenting",
    "selfimprovement": "audience.education",
    "notion_template": "product.template.notion",
    "canva_template": "product.template.canva",
    "spreadsheet_template": "product.template",
    "figma_template": "product.template",
    "software_affiliate": "commerce.digital_resell",
    "education_affiliate": "product.course",
    "health_affiliate": "audience.health",
    "finance_affiliate": "audience.finance",
    "gadget_affiliate": "audience.tech",
}

PATH_PLATFORMS: Dict[str, List[str]] = {
    "micro_service": ["google", "fiverr", "upwork", "linkedin"],
    "content_monetization": ["google", "youtube", "tiktok", "instagram", "twitter"],
    "digital_product": ["google", "gumroad", "udemy", "youtube"],
    "arbitrage_skill": ["google", "shopee", "tokopedia", "tiktok"],
    "freelance_upgrade": ["google", "linkedin", "upwork"],
    "speculative": ["google", "twitter", "reddit"],
}
DEFAULT_PLATFORMS = ["google", "youtube"]

PATH_MONETIZATION_SIGNALS: Dict[str, List[str]] = {
    "micro_service": ["project rates", "hourly rates", "client demand", "Fiverr gig competition"],
    "content_monetization": ["CPM rates", "sponsorship rates", "affiliate commission", "AdSense RPM"],
    "digital_product": ["product pricing", "marketplace fees", "conversion rates", "LTV"],
    "arbitrage_skill": ["margin percentage", "supplier pricing", "shipping costs", "platform fees"],
    "freelance_upgrade": ["contract value", "retainer rates", "upsell opportunity"],
    "speculative": ["market volatility", "entry barriers", "ROI timeline"],
}


def build_default_taxonomy() -> List[NicheTaxonomyNode]:
    """Materialize the static tree as flat nodes (parents before children)."""
    by_id: Dict[str, NicheTaxonomyNode] = {}
    nodes: List[NicheTaxonomyNode] = []
    for node_id, parent_id, label, aliases, keywords in _TREE:
        if parent_id is None:
            path_id, depth = ROOT_PATHS[node_id], 0
        else:
            parent = by_id[parent_id]
            path_id, depth = parent.path_id, parent.depth + 1
        node = NicheTaxonomyNode(
            id=node_id,
            parent_id=parent_id,
            label=label,
            path_id=path_id,
            depth=depth,
            aliases=set(aliases),
            track_keywords=list(keywords),
        )
        by_id[node_id] = node
        nodes.append(node)
    return nodes


def validate_taxonomy(nodes: Iterable[NicheTaxonomyNode]) -> List[NicheTaxonomyNode]:
    """Check tree invariants; raise TaxonomyError on the first violation.

    - ids are unique
    - roots have depth 0, every child sits at parent.depth + 1
    - parents exist, share the child's path, and there are no cycles
    """
    nodes = list(nodes)
    by_id: Dict[str, NicheTaxonomyNode] = {}
    for node in nodes:
        if node.id in by_id:
            raise TaxonomyError(f"Duplicate taxonomy node '{node.id}'")
        by_id[node.id] = node

    for node in nodes:
        if node.parent_id is None:
            if node.depth != 0:
                raise TaxonomyError(f"Root '{node.id}' must have depth 0, got {node.depth}")
            continue
        parent = by_id.get(node.parent_id)
        if parent is None:
            raise TaxonomyError(f"Node '{node.id}' references missing parent '{node.parent_id}'")
        if node.depth != parent.depth + 1:
            raise TaxonomyError(
                f"Node '{node.id}' depth {node.depth} != parent depth {parent.depth} + 1"
            )
        if node.path_id != parent.path_id:
            raise TaxonomyError(f"Node '{node.id}' path '{node.path_id}' differs from parent's")

        seen = {node.id}
        current = parent
        while current is not None:
            if current.id in seen:
                raise TaxonomyError(f"Cycle detected at '{node.id}'")
            seen.add(current.id)
            current = by_id.get(current.parent_id) if current.parent_id else None
    return nodes
