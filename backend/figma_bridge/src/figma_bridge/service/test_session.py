

@pytest.mark.asyncio
async def test_timeout_after_consumer_left_mentions_the_build(text_spec):
    session = HandoffSession(validate_design_spec(text_spec), timeout_s=0.05)
    ws = FakeWebSocket()
    await session.attach(ws)
    session.consumer = None  # dropped without a disconnect callback

    with pytest.raises(SessionTimeoutError) as exc_info:
        await session.wait()
    assert exc_info.value.consumer_connected
    assert "No plugin connected" not in str(exc_info.value)


def test_timeout_message_depends_on_whether_a_consumer_connected():
    assert str(SessionTimeoutError(300)) == "Timeout: No plugin connected within 5 minutes"
    assert str(SessionTimeoutError(90, consumer_connected=True)) == (
        "Timeout: Plugin did not finish the build within 1.5 minutes"
    )
