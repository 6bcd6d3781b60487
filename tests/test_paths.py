from tinytailor.paths import PathResolver

from conftest import make_image


def _resolver(project):
    return PathResolver(project, project / "public", [".jpg", ".jpeg", ".png", ".webp"])


def test_root_relative_reference_uses_public_root(project):
    image = make_image(project / "public" / "images" / "hero.jpg", 10, 10)
    doc = project / "resources" / "views" / "home.blade.php"
    assert _resolver(project).resolve_image_path("/images/hero.jpg?v=3#top", doc) == image


def test_relative_reference_prefers_document_directory(project):
    local = make_image(project / "resources" / "views" / "img" / "a.png", 10, 10)
    make_image(project / "public" / "img" / "a.png", 10, 10)
    doc = project / "resources" / "views" / "page.html"
    assert _resolver(project).resolve_image_path("img/a.png", doc) == local


def test_relative_reference_falls_back_to_public_root(project):
    image = make_image(project / "public" / "images" / "b.png", 10, 10)
    doc = project / "resources" / "views" / "page.html"
    assert _resolver(project).resolve_image_path("images/b.png", doc) == image


def test_project_search_skips_ignored_directories(project):
    make_image(project / "node_modules" / "pkg" / "assets" / "logo.png", 10, 10)
    wanted = make_image(project / "resources" / "assets" / "logo.png", 10, 10)
    doc = project / "resources" / "views" / "page.html"
    assert _resolver(project).resolve_image_path("./assets/logo.png", doc) == wanted


def test_rooted_reference_goes_straight_to_project_search(project):
    wanted = make_image(project / "storage" / "media" / "c.jpg", 10, 10)
    doc = project / "resources" / "views" / "page.html"
    assert _resolver(project).resolve_image_path("/media/c.jpg", doc) == wanted


def test_urls_and_missing_files_do_not_resolve(project):
    doc = project / "resources" / "views" / "page.html"
    resolver = _resolver(project)
    for ref in ("https://cdn.example.com/a.jpg", "//cdn/a.jpg", "data:image/png;base64,AA", "", "nope.jpg"):
        assert resolver.resolve_image_path(ref, doc) is None


def test_normalize_src_for_html(project):
    resolver = _resolver(project)
    doc = project / "resources" / "views" / "page.html"
    assert resolver.normalize_src_for_html(project / "public" / "images" / "x.webp", doc) == "/images/x.webp"
    assert resolver.normalize_src_for_html(project / "resources" / "views" / "img" / "y.jpg", doc) == "./img/y.jpg"
    assert resolver.normalize_src_for_html(project / "resources" / "z.jpg", doc) == "../z.jpg"


def test_build_derivatives_names_siblings(project):
    derivatives = PathResolver.build_derivatives(project / "public" / "images" / "hero.jpg")
    assert derivatives.mob1x.name == "hero-mob.jpg"
    assert derivatives.mob2x.name == "hero-mob@2x.jpg"
    assert derivatives.webp.name == "hero.webp"
    assert derivatives.mob1x_webp.name == "hero-mob.webp"
    assert derivatives.mob2x_webp.name == "hero-mob@2x.webp"
    assert derivatives.webp.parent == project / "public" / "images"
