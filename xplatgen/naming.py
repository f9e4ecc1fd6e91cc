"""
Name mangling helpers

Shared by every generator so the C ABI symbol names, handle typedefs and
per-language identifiers all derive from the same rules.
"""


def to_pascal_case(name: str) -> str:
    """Convert snake_case to PascalCase

    Examples:
        create_engine -> CreateEngine
        hello_api -> HelloApi
    """
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


def to_camel_case(name: str) -> str:
    """Convert snake_case to camelCase"""
    pascal = to_pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


def handle_to_snake(name: str) -> str:
    """Convert a PascalCase handle name to snake_case

    Examples:
        Engine -> engine
        TextureAtlas -> texture_atlas
    """
    chars = []
    for i, ch in enumerate(name):
        if i > 0 and "A" <= ch <= "Z":
            chars.append("_")
        chars.append(ch)
    return "".join(chars).lower()


def c_abi_name(api_name: str, iface_name: str, method_name: str) -> str:
    return f"{api_name}_{iface_name}_{method_name}"


def handle_typedef(handle_name: str) -> str:
    return f"{handle_to_snake(handle_name)}_handle"


def handle_struct_tag(handle_name: str) -> str:
    return f"{handle_to_snake(handle_name)}_s"


def flatbuffer_c_name(type_name: str) -> str:
    """Common.ErrorCode -> Common_ErrorCode"""
    return type_name.replace(".", "_")


def flat_name(type_name: str) -> str:
    """Common.ErrorCode -> CommonErrorCode, used by Kotlin, Swift, Rust and Go"""
    return type_name.replace(".", "")


def export_macro(api_name: str) -> str:
    return f"{api_name.upper()}_EXPORT"


def build_macro(api_name: str) -> str:
    return f"{api_name.upper()}_BUILD"


def destructor_name(handle_name: str) -> str:
    return f"destroy_{handle_to_snake(handle_name)}"


def is_constructor_name(name: str) -> bool:
    return name == "create" or (name.startswith("create_") and len(name) > len("create_"))
