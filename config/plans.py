"""Fallback plan tables per build mode and the page keyword table."""

# Each step entry: (label, detail, category, files)
FALLBACK_STEPS = {
    "component-framework": [
        ("Configure project", "Set up Vite, TypeScript and Tailwind config", "config",
         ["vite.config.ts", "tailwind.config.ts", "tsconfig.json"]),
        ("Define types", "TypeScript interfaces for all data models", "types",
         ["src/lib/types.ts"]),
        ("Build custom hooks", "State management and data hooks", "hook",
         ["src/hooks/useData.ts"]),
        ("Create UI components", "Reusable card, button and form components", "component",
         ["src/components/ui/"]),
        ("Build main components", "Feature-specific components", "component",
         ["src/components/"]),
        ("Assemble application", "Wire everything together in App.tsx", "build",
         ["src/App.tsx", "src/main.tsx"]),
    ],
    "full-stack": [
        ("Database schema", "Prisma models and migrations", "schema",
         ["prisma/schema.prisma"]),
        ("Configure project", "Next.js, TypeScript and environment setup", "config",
         ["next.config.js", "lib/prisma.ts"]),
        ("Define types", "TypeScript types for all models", "types",
         ["lib/types.ts"]),
        ("Build API routes", "REST endpoints for data operations", "api",
         ["app/api/"]),
        ("Create components", "Reusable UI components", "component",
         ["components/"]),
        ("Build pages", "All application pages", "page",
         ["app/"]),
    ],
    # Flat-markup pages are appended per detected page
    "flat-markup": [
        ("Set up design system", "CSS variables, typography and shared components", "style",
         ["style.css"]),
        ("Build shared scripts", "Navigation, animations and form validation", "config",
         ["script.js"]),
    ],
}

FALLBACK_SHAPE = {
    "component-framework": {
        "description": "React application with TypeScript and Tailwind CSS",
        "estimated_files": 12,
        "estimated_seconds": 45,
        "pages": [("App", "src/App.tsx")],
    },
    "full-stack": {
        "description": "Full-stack Next.js application",
        "estimated_files": 20,
        "estimated_seconds": 90,
        "pages": [("Home", "app/page.tsx")],
    },
    "flat-markup": {
        "description": "Multi-page HTML website with shared CSS and vanilla JavaScript",
        "seconds_per_page": 15,
    },
}

# (keywords, page name, file) -- first keyword hit wins a page
PAGE_KEYWORDS = [
    (("home", "landing", "hero"), "Home", "index.html"),
    (("about", "story", "our story", "team"), "About", "about.html"),
    (("service", "menu", "pricing"), "Services", "services.html"),
    (("contact", "booking", "book"), "Contact", "contact.html"),
    (("project", "portfolio", "gallery"), "Projects", "projects.html"),
    (("product", "shop", "store"), "Products", "products.html"),
    (("blog", "article", "post"), "Blog", "blog.html"),
]

HOME_PAGE = ("Home", "index.html")

STACK_LABELS = {
    "flat-markup": ["HTML5", "CSS3", "Vanilla JS"],
    "component-framework": ["React", "Vite", "TypeScript"],
    "full-stack": ["Next.js", "TypeScript", "Tailwind CSS"],
}

# Extra stack labels picked up from the prompt text
STACK_EXTRAS = [
    ("tailwind", "Tailwind CSS"),
    ("animation", "CSS Animations"),
    ("prisma", "Prisma"),
    ("supabase", "Supabase"),
    ("stripe", "Stripe"),
]
