# tools.py

# UTILITY TOOLS (JSON in, JSON out via /api/tools/<slug>)
TOOLS = [
    {
        "slug": "json-formatter",
        "title": "JSON Formatter",
        "icon": "📋",
        "desc": "Format, validate, and beautify your JSON data with our easy-to-use tool."
    },
    {
        "slug": "regex-tester",
        "title": "Regex Tester",
        "icon": "🔍",
        "desc": "Test and debug your regular expressions with real-time matching and validation."
    },
    {
        "slug": "base64-utility",
        "title": "Base64 Utility",
        "icon": "🔒",
        "desc": "Encode and decode Base64 strings and files with ease."
    },
    {
        "slug": "url-encode",
        "title": "URL Encoder/Decoder",
        "icon": "🔗",
        "desc": "Encode and decode URLs, and build query strings easily."
    },
    {
        "slug": "color-pallette",
        "title": "Color Palette Generator",
        "icon": "🎨",
        "desc": "Generate color palettes from images or base colors."
    },
    {
        "slug": "csv-json-yaml",
        "title": "CSV/JSON/YAML Converter",
        "icon": "🔄",
        "desc": "Convert between CSV, JSON, and YAML formats seamlessly."
    },
    {
        "slug": "html-css-js",
        "title": "HTML/CSS/JS Minifier",
        "icon": "💻",
        "desc": "Minify or beautify your HTML, CSS, and JavaScript code."
    },
    {
        "slug": "mock-data",
        "title": "Mock Data Generator",
        "icon": "📊",
        "desc": "Generate realistic mock data for testing and development."
    },
    {
        "slug": "uuid-pass",
        "title": "Password & UUID Generator",
        "icon": "🔐",
        "desc": "Generate secure passwords and UUIDs quickly."
    },
    {
        "slug": "time-convert",
        "title": "Timestamp Converter",
        "icon": "⏰",
        "desc": "Convert and manipulate timestamps easily."
    },
    {
        "slug": "hash-convert",
        "title": "Hash Generator",
        "icon": "#️⃣",
        "desc": "Compute MD5, SHA-1, SHA-256, SHA-512 and SHA-3 hashes of text or files."
    },
    {
        "slug": "unit-convert",
        "title": "Unit Converter",
        "icon": "📏",
        "desc": "Convert between units of length, mass, temperature and more."
    },
    {
        "slug": "qr-utility",
        "title": "QR-Code Utility",
        "icon": "🔳",
        "desc": "Generate QR codes for text and links as PNG or SVG."
    },
]

# FILE TOOLS (dedicated upload endpoints)
FILE_TOOLS = [
    {
        "slug": "pdf-to-word",
        "title": "PDF to Word",
        "icon": "📄",
        "url": "/api/actions/convert-pdf-to-word",
        "desc": "Convert PDF documents to editable Word files while maintaining formatting."
    },
    {
        "slug": "pdf-to-image",
        "title": "PDF to Image",
        "icon": "🖼️",
        "url": "/api/actions/convert-pdf-to-images",
        "desc": "Render every PDF page as a PNG image."
    },
    {
        "slug": "merge-pdf",
        "title": "Merge PDF",
        "icon": "📚",
        "url": "/api/actions/merge-pdfs",
        "desc": "Combine multiple PDF files into a single document."
    },
    {
        "slug": "split-pdf",
        "title": "Split PDF",
        "icon": "✂️",
        "url": "/api/actions/split-pdf",
        "desc": "Split a PDF into separate pages or custom page ranges."
    },
    {
        "slug": "edit-pdf",
        "title": "Edit PDF",
        "icon": "✏️",
        "url": "/api/actions/edit-pdf",
        "desc": "Add text and images to PDF pages."
    },
    {
        "slug": "image-to-pdf",
        "title": "Image to PDF",
        "icon": "🗂️",
        "url": "/api/actions/images-to-pdf",
        "desc": "Combine PNG/JPG images into a single PDF file."
    },
    {
        "slug": "icon-generate",
        "title": "App Icon Generator",
        "icon": "🖼️",
        "url": "/api/generate-icons",
        "desc": "Generate app icons in various sizes for different platforms."
    },
    {
        "slug": "img-compress",
        "title": "Image Compressor",
        "icon": "🖼️",
        "url": "/api/compress-images",
        "desc": "Compress images without losing quality."
    },
    {
        "slug": "build-share",
        "title": "Build Share",
        "icon": "📦",
        "url": "/api/upload-build",
        "desc": "Upload an APK or IPA build and share a download link."
    },
]

# MAPPINGS
SLUG_TO_TOOL = {t["slug"]: t for t in TOOLS}
SLUG_TO_FILE_TOOL = {t["slug"]: t for t in FILE_TOOLS}
