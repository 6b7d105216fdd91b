"""Five tests; exactly one tagged ``tag1`` and one tagged ``tag``."""

from conductor import SuiteNode

tags = SuiteNode("tags")


@tags.test("tagged tag1", tags=["#tag1"])
async def tagged_tag1(ctx):
    pass


@tags.test("tagged tag", tags=["tag"])
async def tagged_tag(ctx):
    pass


@tags.test("tagged tag2", tags=["tag2"])
async def tagged_tag2(ctx):
    pass


@tags.test("tagged tag10", tags=["tag10"])
def tagged_tag10():
    pass


@tags.test("untagged")
async def untagged(ctx):
    pass
